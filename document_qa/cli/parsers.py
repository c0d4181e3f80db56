from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Document Q&A retrieval pipeline (Ollama + Qdrant)")
    ap.add_argument("--offline", action="store_true", default=None, help="Use offline providers instead of Ollama")
    ap.add_argument("--memory", action="store_true", help="Use the in-process vector store instead of Qdrant")
    ap.add_argument("--log-level", default=None, help="Log level for stderr output (default $DOCQA_LOG_LEVEL or INFO)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ec = sub.add_parser("ensure-collection")
    ec.add_argument("--recreate", action="store_true")

    ing = sub.add_parser("ingest")
    ing.add_argument("--id", required=True, help="Stable document id; re-ingesting replaces its chunks")
    src = ing.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="Path to a text file")
    src.add_argument("--text", help="Inline document text")
    ing.add_argument("--mime-type", default=None)
    ing.add_argument("--name", default="")
    ing.add_argument("--chunk-size", type=int, default=None)
    ing.add_argument("--chunk-overlap", type=int, default=None)

    ix = sub.add_parser("index-dir")
    ix.add_argument("--dir", required=True)
    ix.add_argument("--pattern", action="append", default=[], help="Glob pattern; can repeat (default *.txt, *.md)")
    ix.add_argument("--max-items", type=int, default=None)

    q = add_query_subparser(sub, "query", default_k=None)
    q.add_argument("--filter", action="append", default=[], help="Payload filter key=value; can repeat")

    s = add_query_subparser(sub, "search", default_k=10)
    s.add_argument("--threshold", type=float, default=None)

    d = sub.add_parser("delete")
    d.add_argument("--id", required=True)

    r = sub.add_parser("reset")
    r.add_argument("--yes", action="store_true", help="Confirm dropping every document")

    sub.add_parser("stats")
    return ap


def add_query_subparser(sub, name, default_k):
    """Add a subcommand taking a question (``--q``) and a result count (``--k``)."""
    result = sub.add_parser(name)
    result.add_argument("--q", required=True)
    result.add_argument("--k", type=int, default=default_k)
    return result
