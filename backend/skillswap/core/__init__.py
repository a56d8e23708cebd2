"""Core configuration, enums, exceptions and locking for SkillSwap."""
