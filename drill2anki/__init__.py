"""
drill2anki - convert org-drill flashcards into anki-editor notes.

Rewrites drill entries of org files into the note layout pushed by
anki-editor (or by drill2anki itself through AnkiConnect) and carries the
org-drill review history over into Anki's scheduler.
"""

__version__ = "1.0.0"
