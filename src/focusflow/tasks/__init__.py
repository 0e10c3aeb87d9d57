"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, patches)
- hierarchy.py: parent -> children index and bounded traversals
- stats.py: progress / time statistics over a subtree
- completion.py: parent status derived from direct children
- subtasks.py: create / reorder / move / cascade-delete / flatten
- task_store.py: SQLite-backed collection
- task_api.py: read -> compute -> commit workflows used by the CLI
"""
