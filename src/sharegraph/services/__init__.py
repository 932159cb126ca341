"""
Domain services for ShareGraph.

Contains the main business logic services:
- workspace: Private canvases, library entities, pages and their collaborators
- share: Publishing snapshots and duplicating them into new workspaces
"""
