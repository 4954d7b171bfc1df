'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
import json

import logging
_top_logger = logging.getLogger(__name__)

from aws_cdk import (
    aws_iam,
    aws_iot,
    Stack,
    Tags,
)
from constructs import Construct

from acorn_pups_iot.iot_definitions import (
    IotStackConfig,
    IOT_CLIENT_ID_PATTERN,
    IOT_TOPIC_PREFIXES,
    PROJECT_NAME,
    SERVICE_NAME,
    resource_tags,
)
from acorn_pups_iot.parameter_store import ParameterStoreHelper, parameter_root


class IotPolicyStack(Stack):
    '''
    Device policy for ESP32 receivers and the role used by IoT Rules.
    *NOTE* by default both are owned by the API repository (see manage_device_policy in project_config.json)
    '''

    def __init__(
        self,
        scope:Construct, construct_id:str,
        config:IotStackConfig,
        thing_type_name:str,
        **kwargs
        ) -> None:

        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.thing_type_name = thing_type_name
        environment = config.environment
        self.parameter_helper = ParameterStoreHelper(self, environment=environment, stack_name="policies")

        iot_arn_prefix = f"arn:aws:iot:{self.region}:{self.account}"
        # ${iot:ClientId} is an IoT policy variable - each receiver is limited to its own topics
        client_id_var = "${iot:ClientId}"
        #############################################################
        # ***** Device Policy *****
        # least privilege: connect as attached thing, publish events, receive settings/commands
        #############################################################
        _top_logger.info(f"Define device policy for {environment}")
        self.device_policy = aws_iot.CfnPolicy(
            self, "AcornPupsDevicePolicy",
            policy_name=f"AcornPupsDevicePolicy-{environment}",
            policy_document={
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Action": "iot:Connect",
                        "Resource": f"{iot_arn_prefix}:client/{IOT_CLIENT_ID_PATTERN}",
                        "Condition": {
                            "StringEquals": {
                                "iot:Connection.Thing.IsAttached": "true"
                            }
                        }
                    },
                    {
                        "Effect": "Allow",
                        "Action": "iot:Publish",
                        "Resource": [
                            f"{iot_arn_prefix}:topic/{IOT_TOPIC_PREFIXES['buttonPress']}{client_id_var}",
                            f"{iot_arn_prefix}:topic/{IOT_TOPIC_PREFIXES['status']}{client_id_var}"
                        ]
                    },
                    {
                        "Effect": "Allow",
                        "Action": [
                            "iot:Subscribe",
                            "iot:Receive"
                        ],
                        "Resource": [
                            f"{iot_arn_prefix}:topic/{IOT_TOPIC_PREFIXES['settings']}{client_id_var}",
                            f"{iot_arn_prefix}:topic/{IOT_TOPIC_PREFIXES['commands']}{client_id_var}"
                        ]
                    },
                    {
                        "Effect": "Allow",
                        "Action": [
                            "iot:UpdateThingShadow",
                            "iot:GetThingShadow"
                        ],
                        "Resource": f"{iot_arn_prefix}:thing/{client_id_var}"
                    }
                ]
            },
            tags=resource_tags(environment, "Policy")
        )

        #############################################################
        # ***** IoT Rules Execution Role *****
        #############################################################
        _top_logger.info(f"Define IoT Rule execution role")
        self.iot_rule_execution_role = aws_iam.Role(
            self, "IoTRuleExecutionRole",
            role_name=f"AcornPupsIoTRuleExecution-{environment}",
            assumed_by=aws_iam.ServicePrincipal("iot.amazonaws.com"),
            description="Role for IoT Rules to execute Lambda functions and write to CloudWatch Logs",
            managed_policies=[
                aws_iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSIoTRuleActions")
            ],
            inline_policies={
                "LambdaInvokePolicy": aws_iam.PolicyDocument(
                    statements=[
                        aws_iam.PolicyStatement(
                            effect=aws_iam.Effect.ALLOW,
                            actions=["lambda:InvokeFunction"],
                            resources=[f"arn:aws:lambda:{self.region}:{self.account}:function:{PROJECT_NAME}-{environment}-*"]
                        )
                    ]
                ),
                "CloudWatchLogsPolicy": aws_iam.PolicyDocument(
                    statements=[
                        aws_iam.PolicyStatement(
                            effect=aws_iam.Effect.ALLOW,
                            actions=[
                                "logs:CreateLogGroup",
                                "logs:CreateLogStream",
                                "logs:PutLogEvents",
                                "logs:DescribeLogGroups",
                                "logs:DescribeLogStreams"
                            ],
                            resources=[
                                f"arn:aws:logs:{self.region}:{self.account}:log-group:/aws/iot/rules/*",
                                f"arn:aws:logs:{self.region}:{self.account}:log-group:/aws/iot/rules/*:*"
                            ]
                        )
                    ]
                ),
                "ParameterStoreReadPolicy": aws_iam.PolicyDocument(
                    statements=[
                        aws_iam.PolicyStatement(
                            effect=aws_iam.Effect.ALLOW,
                            actions=[
                                "ssm:GetParameter",
                                "ssm:GetParameters",
                                "ssm:GetParameterHistory"
                            ],
                            resources=[f"arn:aws:ssm:{self.region}:{self.account}:parameter{parameter_root(environment)}/*"]
                        )
                    ]
                )
            }
        )
        for t_name, t_value in {"Project": PROJECT_NAME, "Environment": environment, "Service": SERVICE_NAME, "Component": "IAM-Role"}.items():
            Tags.of(self.iot_rule_execution_role).add(t_name, t_value)

        #############################################################
        # ***** Parameter Store *****
        #############################################################
        _top_logger.info(f"Publish policy parameters")
        self.parameter_helper.create_parameter(
            "DevicePolicyArnParam", self.device_policy.attr_arn,
            "ARN of the AcornPupsDevice Policy",
            f"{parameter_root(environment)}/iot-core/device-policy/arn"
        )
        self.parameter_helper.create_parameter(
            "DevicePolicyNameParam", self.device_policy.policy_name,
            "Name of the AcornPupsDevice Policy",
            f"{parameter_root(environment)}/iot-core/device-policy/name"
        )
        self.parameter_helper.create_multiple_outputs_with_parameters([
            {
                "output_id": "DevicePolicyArnOutput",
                "value": self.device_policy.attr_arn,
                "description": "ARN of the Acorn Pups Device Policy",
                "export_name": f"AcornPupsDevicePolicyArn-{environment}"
            },
            {
                "output_id": "DevicePolicyNameOutput",
                "value": self.device_policy.policy_name,
                "description": "Name of the Acorn Pups Device Policy",
                "export_name": f"AcornPupsDevicePolicyName-{environment}"
            },
            {
                "output_id": "IoTRuleExecutionRoleArnOutput",
                "value": self.iot_rule_execution_role.role_arn,
                "description": "ARN of the IoT Rule Execution Role",
                "export_name": f"AcornPupsIoTRuleExecutionRoleArn-{environment}"
            },
            {
                "output_id": "IoTRuleExecutionRoleNameOutput",
                "value": self.iot_rule_execution_role.role_name,
                "description": "Name of the IoT Rule Execution Role",
                "export_name": f"AcornPupsIoTRuleExecutionRoleName-{environment}"
            },
        ])
        self.parameter_helper.create_parameter(
            "ClientIdPatternParam", IOT_CLIENT_ID_PATTERN,
            "Client ID pattern for IoT device connections",
            f"{parameter_root(environment)}/iot-core/client-id-pattern"
        )
        self.parameter_helper.create_parameter(
            "TopicPrefixesParam", json.dumps(IOT_TOPIC_PREFIXES),
            "MQTT topic prefixes for device communication",
            f"{parameter_root(environment)}/iot-core/topic-prefixes"
        )
