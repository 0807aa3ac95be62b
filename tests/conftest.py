"""Global test configuration for citechunk tests."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop logger configuration bound to streams from a previous test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def cli_runner():
    """Provide a Typer CLI runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def sample_markdown():
    """A small guide with a preamble, nested headings, a list and code."""
    return """Welcome to the project.

# Guide

This guide explains the setup.

## Install

Run the installer:

```bash
# this comment is not a heading
pip install example

echo done
```

## Usage

- start the service
- open the dashboard

Use `example --help` for options."""
