"""Host resolution: probes, failure reporting, direct and cloud resolvers."""
