"""Run a single task-helper target from the command line.

Only built-in handlers are available here (size, newFile). The surviving
file groups are printed one JSON object per line, so the script can be used
to list changed files:

    python scripts/run_task_helper.py src/app.js --dest dist/app.js --new-file
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a task-helper target")
    parser.add_argument("src", nargs="*", help="Source files (relative to --base-dir)")
    parser.add_argument("--dest", default=None, help="Destination file of the group")
    parser.add_argument("--base-dir", default=".", help="Working directory for relative paths (default: .)")
    parser.add_argument("--store-path", default=None, help="Change store file (default: <base-dir>/.task_helper/task-helper/fileUpdates.json)")
    parser.add_argument("--new-file", action="store_true", help="Keep the group only if it changed (newFile)")
    parser.add_argument("--min-size", type=int, default=None, help="Drop sources smaller than this many bytes")
    parser.add_argument("--max-size", type=int, default=None, help="Drop sources larger than this many bytes")
    parser.add_argument("--mtime-offset", type=int, default=None, help="Commit offset in seconds (default: 3)")
    parser.add_argument("--no-commit", action="store_true", help="Do not commit the change store")

    args = parser.parse_args()

    # Allow running this script directly without requiring installation.
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    from task_helper.errors import TaskHelperError
    from task_helper.pipeline import HandlerPipeline, RunContext

    context = RunContext(
        base_dir=Path(args.base_dir),
        store_path=Path(args.store_path) if args.store_path else None,
        mtime_offset=args.mtime_offset,
    )

    files_array: list = []
    options = {"filesArray": files_array}
    if args.new_file:
        options["handlerByFile"] = "newFile"
    if args.min_size is not None or args.max_size is not None:
        options["handlerByFileSrc"] = "size"
        options["minSize"] = args.min_size
        options["maxSize"] = args.max_size

    pipeline = HandlerPipeline(options, context=context, target="cli")
    result = pipeline.run([{"src": list(args.src), "dest": args.dest}])

    if not args.no_commit:
        try:
            context.run_deferred()
        except TaskHelperError as e:
            print(str(e), file=sys.stderr)
            return 2

    for entry in result.files_array:
        print(json.dumps(entry.to_dict(), ensure_ascii=False))

    if not result.success:
        for err in result.errors:
            print(err, file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
