"""Living Library backend: story store, realtime sync and AI drafting proxy."""
