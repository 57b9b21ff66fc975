"""Rebuild pipeline for a managed search index.

Stage 1: Sources - Produce the list of document URLs (manifest or numeric range)
Stage 2: Sync - Clear the storage container and upload content-addressed documents
Stage 3: Index lifecycle - Recreate index, data source and indexer, then run the indexer
"""
