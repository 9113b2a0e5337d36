class FindReplaceError(Exception):
    """Base class for every error raised by the find/replace core."""


# Fatal: raised before any file is touched, the run never starts.
class ConfigError(FindReplaceError):
    pass


class InvalidRootError(ConfigError):
    pass


class PatternError(ConfigError):
    pass


# Per file: absorbed into that file's FileOutcome by the engines.
class FileReadError(FindReplaceError):
    pass


class FileWriteError(FindReplaceError):
    pass


class AlreadyRunningError(FindReplaceError):
    pass
