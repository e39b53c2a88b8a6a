# vibe_assistant/errors.py


class VibeAssistantError(Exception):
    pass


class NotFoundError(VibeAssistantError):
    """A session, project, step or prompt template does not exist."""


class TemplateNotFoundError(NotFoundError):
    def __init__(self, name: str, directory):
        self.name = name
        self.directory = str(directory)
        super().__init__(f'Промпт "{name}" не найден в {self.directory}')


class ValidationError(VibeAssistantError):
    """Malformed or missing required input; surfaced as HTTP 400."""


class UpstreamError(VibeAssistantError):
    """
    The LLM API call failed. ``kind`` tells which family of failure it was
    (rate_limit, timeout, network, auth, bad_request, server, bad_response, unknown);
    the message is meant for the end user and already carries a retry hint.
    """

    def __init__(self, message: str, kind: str = "unknown"):
        self.kind = kind
        super().__init__(message)
