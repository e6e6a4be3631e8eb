"""
Mastery Progression & Credentialing Core.

Adaptive-curriculum progression engine: ordered mastery levels per subject, adaptive
lesson rigor, level verification, alternate pathways and verifiable certificates.
"""

__version__ = "1.0.0"
