"""Agent process entry point

Usage: python -m cellrepl.agent [--install-packages]

The protocol runs over private duplicates of stdin/stdout. The real fds 0
and 1 are pointed at /dev/null and stderr, so user code reading stdin or
writing straight to fd 1 can't corrupt the protocol stream.

"""

import os
import sys

from .evaluator import Agent
from .protocol import MessageWriter


def _protocol_streams():
    proto_in = os.fdopen(os.dup(0), "r", encoding="utf-8")
    proto_out = os.fdopen(os.dup(1), "w", encoding="utf-8")

    devnull = os.open(os.devnull, os.O_RDONLY)
    os.dup2(devnull, 0)
    os.close(devnull)
    os.dup2(2, 1)
    return proto_in, proto_out


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    proto_in, proto_out = _protocol_streams()
    agent = Agent(MessageWriter(proto_out), install_packages="--install-packages" in argv)
    try:
        agent.serve(proto_in)
    finally:
        proto_out.close()


if __name__ == "__main__":
    main()
