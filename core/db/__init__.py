"""Relational store for projects, embeddings, commits and questions."""

from .connection import Database, DatabaseError
from .models import Commit, FileReference, NewCommit, Project, Question, RetrievedFile, User
from .store import ProjectStore, build_commit_insert, to_vector_literal

__all__ = [
    "Commit",
    "Database",
    "DatabaseError",
    "FileReference",
    "NewCommit",
    "Project",
    "ProjectStore",
    "Question",
    "RetrievedFile",
    "User",
    "build_commit_insert",
    "to_vector_literal",
]
