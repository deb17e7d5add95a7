"""
Cascade: adaptive short-form learning feed engine.

Decides what a learner sees next in an endless-scroll feed that is
continuously refilled by a generation backend.
"""

__version__ = "1.0.0"
