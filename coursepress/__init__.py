"""Compile a Markdown course tree into JSON artifacts for a course website."""
