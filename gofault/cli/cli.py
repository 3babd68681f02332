import argparse
import os
import sys
from logging import DEBUG, WARNING
from typing import Optional, List

from gofault.common.config import C
from gofault.common.util import init_logger, echo
from gofault.toolchain.go import ToolchainError
from gofault.workflow.runner import Runner, MODES


class ArgParser(argparse.ArgumentParser):

    def __init__(self, add_subparsers=True, **kwargs):
        super().__init__(description='Runs Go programs and tests with their compile errors deferred to runtime', **kwargs)
        self.subparsers = None

        if add_subparsers:
            # Common arguments
            self.add_argument('-v', '--verbose', action='count', default=0, help='Verbose logging, keeps the temporary files')
            self.add_argument('-c', '--config', default='', help='Path to the global configuration file [~/.gofault/config.toml]')

            # Subcommands, named after the go subcommand they stand in for
            self.subparsers = self.add_subparsers(dest='command', help='Subcommand')
            self.subparsers.required = True

            run_parser = self.subparsers.add_parser('run', help='Compile and run a Go program', add_subparsers=False)
            run_parser.add_argument('args', nargs=argparse.REMAINDER, help='Package or source files, then the program arguments')

            test_parser = self.subparsers.add_parser('test', help='Test Go packages', add_subparsers=False)
            test_parser.add_argument('args', nargs=argparse.REMAINDER, help='Arguments of go test')

            build_parser = self.subparsers.add_parser('build', help='Compile Go packages', add_subparsers=False)
            build_parser.add_argument('args', nargs=argparse.REMAINDER, help='Arguments of go build')

    def format_help(self):
        subcommand_helps = [super().format_help()]

        if self.subparsers:
            for name, subparser in self.subparsers.choices.items():
                subcommand_helps.append(f"{subparser.format_usage()[len('usage: '):].strip().replace('[-h] ', '', 1)}")
                subcommand_helps.append('  ' + subparser.format_help().partition('show this help message and exit\n')[2].strip())
                subcommand_helps.append('')

        return '\n'.join(subcommand_helps)


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = ArgParser()
    args = parser.parse_args(argv)

    command = args.command
    if command not in MODES:
        print(f'Unknown command: {command}', file=sys.stderr)
        return 2

    if not args.args:
        parser.print_help()
        return 2

    try:
        config_path = args.config
        if config_path:
            if not os.path.exists(config_path):
                raise IOError(f'Missing configuration file: {config_path}')
            C.load(config_path)

        if args.verbose:
            C.VERBOSE = True

        init_logger(loglevel=DEBUG if C.VERBOSE else WARNING)

        with Runner(command, C.VERBOSE, args.args) as runner:
            runner.prepare()
            return runner.run()

    except (ToolchainError, OSError) as e:
        echo(str(e))
        return 1


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
