from .approaching_birthday_notifier import approaching_birthday_notifier_task

__all__ = [
    "approaching_birthday_notifier_task",
]
