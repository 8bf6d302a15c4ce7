"""
Agent implementations for the review preprocessor.

Contains the per-review processing steps:
- Text Cleaner
- Contentfulness Classifier
- Language Detector
- Translators (Noop, Gemini, Cascade)
"""
