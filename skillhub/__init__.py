"""SkillHub: package, content-address and verify versioned skill artifacts."""

__version__ = "0.1.0"
