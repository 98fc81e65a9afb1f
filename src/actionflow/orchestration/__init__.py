"""Workflow orchestration.

Modules
-------
models       definitions, runs and audit logs
definitions  definition registry (in-memory, SQLite)
recorder     run recorder and run history stores
conditions   condition expression evaluator
engine       execution engine
dispatcher   event dispatcher
service      WorkflowService facade and composition root
testing      test doubles
"""
