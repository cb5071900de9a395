"""
Services package for the authenticity analysis server.

Stateful collaborators of an analysis session:
- History stores: bounded emotion and speech histories
- Speech channel: finalized-segment events from the speech-to-text engine
- Session registry: per-interview sessions for the web server
"""
