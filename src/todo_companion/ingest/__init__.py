"""
Conversation -> task ingestion.

- summarizer.py: stage 1, transcript -> free-form summary
- extractor.py: stage 2, summary -> task drafts (strict JSON array contract)
- pipeline.py: state machine that chains both stages and materializes drafts
"""
