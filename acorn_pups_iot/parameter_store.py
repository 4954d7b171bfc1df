'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from __future__ import annotations
from typing import Dict, List, Optional
import re

from aws_cdk import (
    aws_iot,
    aws_ssm,
    CfnOutput,
)
from constructs import Construct

import logging
_top_logger = logging.getLogger(__name__)


def parameter_root(environment:str)->str:
    return f"/acorn-pups/{environment}"

def lambda_function_arn_path(environment:str, function_name:str)->str:
    ''' Lambda ARNs are published by the API repository '''
    return f"{parameter_root(environment)}/lambda-functions/{function_name}/arn"

def rule_execution_role_arn_path(environment:str)->str:
    ''' IoT rule execution role ARN is published by the API repository '''
    return f"{parameter_root(environment)}/iot-core/rule-execution-role/arn"

def to_kebab_case(name:str)->str:
    ''' PascalCase/camelCase -> kebab-case (every capital letter starts a new word) '''
    return re.sub(r"^-", "", re.sub(r"([A-Z])", r"-\1", name).lower())


class ParameterStoreHelper:
    '''
    Publish stack values to SSM Parameter Store (and CloudFormation outputs)
    so other Acorn Pups repositories can consume them
    '''

    def __init__(self, scope:Construct, environment:str, stack_name:str) -> None:
        self.scope = scope
        self.environment = environment
        self.stack_name = stack_name

    def get_parameter_path(self, output_id:str)->str:
        ''' generated path for values without an explicit contract path '''
        return f"{parameter_root(self.environment)}/iot-outputs/{self.stack_name}/{to_kebab_case(output_id)}"

    def create_parameter(self, parameter_id:str, value:str, description:str, parameter_path:str=None)->aws_ssm.StringParameter:
        path = parameter_path or self.get_parameter_path(parameter_id)
        _top_logger.debug(f"Parameter {path} ({parameter_id})")
        return aws_ssm.StringParameter(
            self.scope, f"{parameter_id}Parameter",
            parameter_name=path,
            string_value=value,
            description=f"[{self.stack_name}] {description}",
            tier=aws_ssm.ParameterTier.STANDARD,
            allowed_pattern=".*",
        )

    def create_output_with_parameter(self, output_id:str, value:str, description:str, export_name:str=None, parameter_path:str=None)->CfnOutput:
        ''' CloudFormation output + Parameter Store parameter with the same value '''
        self.create_parameter(output_id, value, description, parameter_path)
        return CfnOutput(
            self.scope, output_id,
            value=value,
            description=description,
            export_name=export_name
        )

    def create_multiple_outputs_with_parameters(self, outputs:List[Dict[str,Optional[str]]])->List[CfnOutput]:
        ''' every item must have output_id, value, description and may have export_name, parameter_path '''
        return [
            self.create_output_with_parameter(
                o["output_id"], o["value"], o["description"],
                export_name=o.get("export_name"),
                parameter_path=o.get("parameter_path")
            )
            for o in outputs
        ]

    #-----------------------------------------
    # Convenience writers for well-known IoT resources
    def create_iot_thing_type_parameters(self, thing_type_arn:str, thing_type_name:str):
        self.create_parameter("ThingTypeArn", thing_type_arn,
            "ARN of the AcornPupsDevice Thing Type",
            f"{parameter_root(self.environment)}/iot-core/thing-type/arn")
        self.create_parameter("ThingTypeName", thing_type_name,
            "Name of the AcornPupsDevice Thing Type",
            f"{parameter_root(self.environment)}/iot-core/thing-type/name")

    def create_iot_policy_parameters(self, policy_arn:str, policy_name:str):
        self.create_parameter("DevicePolicyArn", policy_arn,
            "ARN of the AcornPupsDevice Policy",
            f"{parameter_root(self.environment)}/iot-core/device-policy/arn")
        self.create_parameter("DevicePolicyName", policy_name,
            "Name of the AcornPupsDevice Policy",
            f"{parameter_root(self.environment)}/iot-core/device-policy/name")

    def create_iot_rule_parameters(self, rules:Dict[str,aws_iot.CfnTopicRule]):
        ''' /iot-core/rules/{key}/arn and /iot-core/rules/{key}/name for every rule '''
        for name, rule in rules.items():
            self.create_parameter(f"{name}RuleArnParam", rule.attr_arn,
                f"ARN of the {name} IoT Rule",
                f"{parameter_root(self.environment)}/iot-core/rules/{name}/arn")
            self.create_parameter(f"{name}RuleNameParam", rule.rule_name,
                f"Name of the {name} IoT Rule",
                f"{parameter_root(self.environment)}/iot-core/rules/{name}/name")

    def create_iot_core_parameters(self, region:str, account:str):
        iot_endpoint = f"{account}.iot.{region}.amazonaws.com"
        self.create_parameter("IotEndpointUrl", iot_endpoint,
            "AWS IoT Core endpoint URL for MQTT connections",
            f"{parameter_root(self.environment)}/iot-core/endpoint-url")
        self.create_parameter("IotDataEndpointUrl", f"https://{iot_endpoint}",
            "AWS IoT Core data endpoint URL for API operations",
            f"{parameter_root(self.environment)}/iot-core/data-endpoint-url")
