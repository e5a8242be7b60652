"""API v1 endpoints package."""

from . import (
	acknowledgements,
	auth,
	documents,
	email_config,
	files,
	health,
	riders,
	roles,
	users,
)

__all__ = [
	"acknowledgements",
	"auth",
	"documents",
	"email_config",
	"files",
	"health",
	"riders",
	"roles",
	"users",
]
