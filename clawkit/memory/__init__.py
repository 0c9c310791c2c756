"""Per-session turn summaries stored as daily JSONL files."""