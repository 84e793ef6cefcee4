"""Provider calls, response normalization and the offline fallback bank."""
