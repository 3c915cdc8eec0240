"""GitHub REST API access: releases, assets and workflow run artifacts."""
