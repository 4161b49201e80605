"""Report adapters: code coverage and test-execution traces."""
