"""Domain errors for TaskBoard."""


class TaskNotFoundError(FileNotFoundError):
    """Requested task is absent (or unreadable) on disk."""


class InvalidProjectNameError(ValueError):
    """Project name is empty once reduced to the safe segment alphabet."""


class MalformedTaskError(ValueError):
    """Task file content cannot be interpreted as a task record."""
