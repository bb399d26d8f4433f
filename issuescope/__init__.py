"""
Issuescope - Cache open GitHub issues locally and ask a local LLM about them.

A CLI tool and small web service that:
1. Scans a GitHub repository's open issues into a local SQLite cache
2. Keeps the cache fresh with incremental, bounded scans
3. Builds a size-bounded context from the cached issues
4. Sends that context plus a question to a locally hosted LLM

Usage:
    issuescope init                          # Initialize in current repo
    issuescope scan owner/repo               # Fetch open issues
    issuescope analyze owner/repo "question" # Ask the LLM about them
    issuescope repos                         # List scanned repositories
    issuescope serve                         # Start the HTTP API
"""

__version__ = "0.1.0"
__author__ = "Issuescope"
