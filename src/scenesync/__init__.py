"""scenesync — keep scene documents in step with Multimuse bot threads."""

__version__ = "0.1.0"
