"""HTTP routes for SkillSwap."""
