from .user_directory import DatabaseUserDirectory, UserDirectory, UserInfo

__all__ = ["DatabaseUserDirectory", "UserDirectory", "UserInfo"]
