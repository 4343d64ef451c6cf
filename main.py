import json
import sys

from pipelines.core import run_pipeline
from pipelines.errors import PipelineError
from webapp.config import load_settings
from webapp.utils.logging import configure_logging


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)

    if len(sys.argv) > 1:
        query = " ".join(sys.argv[1:]).strip()
    else:
        query = input("Search query (e.g. $FOO token): ").strip()

    if not query:
        print("A search query is required.", file=sys.stderr)
        sys.exit(2)

    try:
        result = run_pipeline(query, settings)
    except PipelineError as e:
        print(f"Pipeline failed during {e.stage}: {e.cause}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result.to_response(), ensure_ascii=False, indent=2))
