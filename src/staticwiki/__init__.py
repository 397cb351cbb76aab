"""StaticWiki: an in-memory wiki persisted by JSON snapshots."""
