class HubError(Exception):
    pass


class HubConnectionError(HubError):
    pass


class HubTimeoutError(HubError):
    pass


class HubCommandError(HubError):
    pass
