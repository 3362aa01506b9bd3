import nox
from pathlib import Path

ROOT = Path(__file__).parent

@nox.session
def tests(session: nox.Session) -> None:
    """Run the test suite."""
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)

@nox.session
def smoke(session: nox.Session) -> None:
    """Ensure the package imports in a clean environment."""
    session.install("-e", ".")
    session.run("python", "-c", "import runoffproc; print(runoffproc.__version__)")
