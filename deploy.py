'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
# helper script to run CDK CLI for Acorn Pups IoT stacks
# This script is somewhat analog of this set of commands
'''
python pre_deploy.py --check --environment dev
cdk deploy --all -c environment=dev
'''
from typing import List
import sys
import shlex
import subprocess
import argparse
#-------------------------
import logging
_top_logger = logging.getLogger(__name__)


ACTIONS = ["deploy", "destroy", "diff", "synth"]
ENVIRONMENTS = ["dev", "prod"]
STACK_SUFFIXES = ["certificates", "thing-types", "policies", "rules", "monitoring"]


def full_stack_name(stack:str, environment:str)->str:
    ''' "rules" -> "acorn-pups-iot-dev-rules", full names are returned as is '''
    if stack in STACK_SUFFIXES:
        return f"acorn-pups-iot-{environment}-{stack}"
    return stack

def build_cdk_command(action:str, environment:str, stack:str=None, force:bool=False, profile:str=None)->List[str]:
    if action not in ACTIONS:
        raise ValueError(f"Unsupported action {action}. Use one of {ACTIONS}")
    if environment not in ENVIRONMENTS:
        raise ValueError(f"Invalid environment: {environment}. Must be one of {ENVIRONMENTS}")

    command = ["cdk", action]
    if stack:
        command.append(full_stack_name(stack, environment))
    elif action in ["deploy", "destroy"]:
        command.append("--all")
    command.extend(["-c", f"environment={environment}"])
    if force and action=="deploy":
        command.extend(["--require-approval", "never"])
    elif force and action=="destroy":
        command.append("--force")
    if profile:
        command.extend(["--profile", profile])
    return command


def parse_arguments(args=None):
    ''' this is required ONLY if command line is used '''
    parser = argparse.ArgumentParser(
        description="Deploy, destroy, diff or synth Acorn Pups IoT stacks with CDK CLI",
        usage=''' python3 deploy.py deploy --environment prod {--stack rules} {--force} {--dry-run}'''
    )
    parser.add_argument("action", choices=ACTIONS, help="CDK action to run")
    parser.add_argument("--environment", "-e", dest="environment", choices=ENVIRONMENTS, default="dev", help="Deployment environment")
    parser.add_argument("--stack", "-s", dest="stack", default=None, required=False, help=f"Stack name or one of {STACK_SUFFIXES} (all stacks if omitted)")
    parser.add_argument("--force", "-f", dest="force", action="store_true", required=False, help="Skip approval prompts")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", required=False, help="Print CDK command without running it")
    parser.add_argument("--profile", "-p", dest="profile", default=None, required=False, help="AWS profile")
    parser.add_argument("--skip-checks", dest="skip_checks", action="store_true", required=False, help="Do not check prerequisites before deploy")

    return parser.parse_args(args)


def main(args=None)->int:
    my_args = parse_arguments(args)
    _top_logger.debug(my_args)

    command = build_cdk_command(my_args.action, my_args.environment, my_args.stack, my_args.force, my_args.profile)
    if my_args.dry_run:
        _top_logger.info(f"Dry run, will not execute '{shlex.join(command)}'")
        print(shlex.join(command))
        return 0

    if my_args.action=="deploy" and not my_args.skip_checks:
        _top_logger.info(f"Will run pre-deploy checks")
        from pre_deploy import run_check
        check_result = run_check(my_args.environment, my_args.profile)
        if check_result!=0:
            return check_result

    _top_logger.info(f"Will execute '{shlex.join(command)}'")
    try:
        # *NOTE* blocking check_call - cdk output goes directly to the console
        subprocess.check_call(command)
    except subprocess.CalledProcessError as e:
        _top_logger.error(f"'{shlex.join(command)}' execution was unsuccessful (exit code {e.returncode})")
        return e.returncode or 1
    except FileNotFoundError:
        _top_logger.error(f"cdk CLI is not available. Install it with 'npm install -g aws-cdk'")
        return 1
    return 0


if __name__=="__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    sys.exit(main())
