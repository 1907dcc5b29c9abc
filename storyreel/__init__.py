"""
StoryReel - story text to generated media.

Splits a story into scenes and drives image, narration and video
generation for each scene through external generative back-ends.
"""
__version__ = "1.0.0"
