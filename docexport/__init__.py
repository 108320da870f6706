"""
Quote and contract export pipeline: document model, rendering, pagination
and export orchestration
"""
