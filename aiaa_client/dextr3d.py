"""
Command line interface for point based 3D annotation (DEXTR3D).

Example:
    aiaa_client.dextr3d -label liver -points "[[70,172,86],[105,161,180]]" -image in.tif -output out.tif -crop
"""

import sys
from typing import List, Optional

from . import util
from .client import Client
from .request_config import Options, configure_request, dispatch


def _get_parser():
    import argparse

    default_roi = util.point_to_string(util._DEFAULT_ROI)
    parser = argparse.ArgumentParser(
        prog="aiaa_client.dextr3d", allow_abbrev=False,
        description="Segment an object from points on its boundary with an annotation model on the AIAA server.",
    )
    parser.add_argument(
        "-server", default=None,
        help=f"The server URI. By default AIAA_SERVER or {util._DEFAULT_SERVER} is used."
    )
    parser.add_argument(
        "-label", default=None, help="The label used to find the model. Either -label or -model is required."
    )
    parser.add_argument(
        "-model", default=None, help="The model name. Either -label or -model is required."
    )
    parser.add_argument(
        "-points", default=None, help="The 3D points [[x,y,z]+], e.g. [[70,172,86],...,[105,161,180]]. Required."
    )
    parser.add_argument(
        "-pad", type=float, default=None,
        help=f"The padding around the points. By default the padding of the model is used ({util._DEFAULT_PADDING})."
    )
    parser.add_argument(
        "-roi", default=None,
        help=f"The ROI size for inference. By default the ROI of the model is used ({default_roi})."
    )
    parser.add_argument(
        "-image", default=None, help="The input image. Either -image or -session is required."
    )
    parser.add_argument(
        "-session", default=None, help="The session id. Can only be used without -crop."
    )
    parser.add_argument(
        "-crop", action="store_true", help="Whether to pre-process (crop) the input before sending it to the server."
    )
    parser.add_argument(
        "-output", default=None, help="The path for the output image. Required."
    )
    parser.add_argument(
        "-timeout", type=int, default=util._DEFAULT_TIMEOUT, help="The timeout in seconds."
    )
    parser.add_argument(
        "-ts", action="store_true", help="Whether to print the latency of the API call."
    )
    return parser


def parse_options(argv: Optional[List[str]] = None) -> Options:
    """Parse the command line arguments.

    Args:
        argv: The arguments. By default the arguments of the process are used.

    Returns:
        The options.
    """
    args = _get_parser().parse_args(argv)
    return Options(
        server=args.server, label=args.label, model=args.model, points=args.points,
        pad=args.pad, roi=args.roi, image=args.image, session=args.session, crop=args.crop,
        output=args.output, timeout=args.timeout, print_ts=args.ts,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """@private"""
    if argv is None:
        argv = sys.argv[1:]
    if len(argv) == 0:
        _get_parser().print_help()
        return 0
    options = parse_options(argv)

    with Client(options.server, timeout=options.timeout) as client:
        result = configure_request(options, client)
        if not result.ok:
            print(result.error, file=sys.stderr)
            return -1

        inference = dispatch(client, result.config)

    if inference.error is not None:
        print(inference.error, file=sys.stderr)
        return -1

    print(f"Return Code: {inference.status}", "(FAILED)" if inference.status else "(SUCCESS)")
    if options.print_ts:
        print(f"API Latency (in milli sec): {inference.latency_ms}")
    return inference.status


if __name__ == "__main__":
    sys.exit(main())
