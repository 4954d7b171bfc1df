'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from typing import List
import json
from boto3 import session

import sys
import argparse
import logging
_top_logger = logging.getLogger(__name__)

#-------------------------
from common_project_config import ProjectConfig, DEFAULT_ENVIRONMENT
from acorn_pups_iot.parameter_store import lambda_function_arn_path, rule_execution_role_arn_path
from acorn_pups_iot.rules_stack import TOPIC_RULES


# ssm get_parameters accepts up to 10 names per call
GET_PARAMETERS_BATCH = 10


def required_parameters(environment:str, include_role:bool=True)->List[str]:
    ''' Parameter Store names published by the API repository and read by the rules stack '''
    names = []
    for rule_def in TOPIC_RULES:
        path = lambda_function_arn_path(environment, rule_def.lambda_function)
        if path not in names:
            names.append(path)
    if include_role:
        names.append(rule_execution_role_arn_path(environment))
    return names

def missing_prerequisites(ssm_client, environment:str, include_role:bool=True)->List[str]:
    ''' returns names of the required parameters which are not available in Parameter Store '''
    names = required_parameters(environment, include_role)
    missing = []
    for i in range(0, len(names), GET_PARAMETERS_BATCH):
        response = ssm_client.get_parameters(Names=names[i:i+GET_PARAMETERS_BATCH])
        missing.extend(response.get("InvalidParameters", []))
    # keep order of required_parameters
    return [n for n in names if n in missing]


def parse_arguments(args=None):
    ''' this is required ONLY if command line is used '''
    parser = argparse.ArgumentParser(
        description="Pre-deploy helper script. Check cross-repository prerequisites of Acorn Pups IoT stacks",
        usage=''' python3 pre_deploy.py --check {--environment prod}'''
    )
    parser.add_argument("--check", "-c", dest="check_prerequisites", action="store_true", required=False, help="Check that parameters required by IoT Rules exist in Parameter Store")
    parser.add_argument("--environment", "-e", dest="environment", default=DEFAULT_ENVIRONMENT, required=False, help="Deployment environment (dev or prod)")
    parser.add_argument("--profile", "-p", dest="profile", default=None, required=False, help="AWS profile to use instead of project_config.json depl_profile")

    return parser.parse_args(args)


def run_check(environment:str, profile:str=None)->int:
    ''' returns process exit code '''
    #*****************************************
    #* Load Project Configuration
    pr_config = ProjectConfig.create_from_file(environment_name=environment)
    _top_logger.debug(f"Collected project config:\n{json.dumps(pr_config.config_data, indent=3)}")

    # we'll use boto3 session to support profiles
    cloud_session = session.Session(
        profile_name=profile or pr_config.environment["profile"],
        region_name=pr_config.environment["region"]
    )
    missing = missing_prerequisites(
        cloud_session.client("ssm"),
        environment,
        include_role=not pr_config.manage_device_policy
    )
    if len(missing)>0:
        _top_logger.error(f"Missing parameters (deploy Acorn Pups API for '{environment}' first):\n" + "\n".join(missing))
        return 1
    _top_logger.info(f"All prerequisites for '{environment}' are available")
    return 0


if __name__=="__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # parse and collect command line arguments
    my_args = parse_arguments()
    _top_logger.debug(my_args)

    if my_args.check_prerequisites:
        _top_logger.info(f"Check prerequisites with boto3")
        sys.exit(run_check(my_args.environment, my_args.profile))
    else:
        _top_logger.info(f"You should provide --check option")
