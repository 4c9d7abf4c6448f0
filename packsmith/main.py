# packsmith/main.py
from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Mapping, Sequence

from packsmith.app.context import BuildContext
from packsmith.app.settings import parseFilterSettings
from packsmith.core.errors import PackagingError
from packsmith.core.logging import clearLogContext, configureLogging
from packsmith.pipeline import runBuild

logger = logging.getLogger(__name__)

__all__ = ["main"]



def main(argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    """
    Filter entry point. argv[0], when given, is the runner's filter settings JSON.
    Returns the process exit code.
    """
    args = list(sys.argv[1:] if argv is None else argv)

    # Console-only logging until settings are known
    configureLogging(None)
    try:
        context = BuildContext.fromEnvironment(
            environ,
            filterSettings=parseFilterSettings(args[0] if args else None),
        )
        configureLogging(context.settings, baseDir=context.rootDir)
        logger.info("Exporting add-on in working directory: %s", context.filterDir or context.rootDir)

        report = asyncio.run(runBuild(context))
    except PackagingError as err:
        logger.error("Packaging failed: %s", err)
        logger.debug("Packaging failure details", exc_info=True)
        return 1
    finally:
        clearLogContext()

    return 0 if report.ok else 1



if __name__ == "__main__":
    sys.exit(main())
