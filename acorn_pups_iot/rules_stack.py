'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List
import json
from jinja2 import Environment, StrictUndefined

import logging
_top_logger = logging.getLogger(__name__)

from aws_cdk import (
    aws_iot,
    aws_ssm,
    Stack,
)
from constructs import Construct

from acorn_pups_iot.iot_definitions import IotStackConfig, IOT_TOPIC_TEMPLATES, resource_tags
from acorn_pups_iot.parameter_store import (
    ParameterStoreHelper,
    lambda_function_arn_path,
    parameter_root,
    rule_execution_role_arn_path,
)


RULES_LOG_GROUP_PREFIX = "/aws/iot/rules/AcornPups"
# topic(3) is the deviceId for every topic served (acorn-pups/<plane>/<deviceId>[/<suffix>])
RULE_SQL_TEMPLATE = "SELECT *, topic(3) as deviceId, timestamp() as receivedAt FROM '{{ topic }}'"


@dataclass(frozen=True)
class TopicRuleDefinition:
    ''' one row of the topic -> Lambda routing table '''
    key:str
    rule_type:str
    topic:str
    lambda_function:str
    description:str
    processing:str
    processing_description:str

    def rule_name(self, environment:str)->str:
        # IoT rule names allow only [a-zA-Z0-9_]
        return f"AcornPups{self.rule_type}_{environment}"

    def log_group_name(self, environment:str)->str:
        return f"/aws/iot/rules/{self.rule_name(environment)}"


TOPIC_RULES:List[TopicRuleDefinition] = [
    TopicRuleDefinition(
        key="buttonPress",
        rule_type="ButtonPress",
        topic=IOT_TOPIC_TEMPLATES["buttonPress"],
        lambda_function="handleButtonPress",
        description="Route RF button press events from ESP32 receivers to handleButtonPress Lambda function for real-time notifications",
        processing="REAL_TIME",
        processing_description="Real-time processing of RF button press events - no persistent storage",
    ),
    TopicRuleDefinition(
        key="deviceStatus",
        rule_type="DeviceStatus",
        topic=IOT_TOPIC_TEMPLATES["status"],
        lambda_function="updateDeviceStatus",
        description="Route device status updates from ESP32 receivers to updateDeviceStatus Lambda function",
        processing="PERSISTENT",
        processing_description="Process device status updates and store in DeviceStatus table",
    ),
    TopicRuleDefinition(
        key="deviceReset",
        rule_type="DeviceReset",
        topic=f"{IOT_TOPIC_TEMPLATES['commands']}/reset",
        lambda_function="resetDevice",
        description="Route device reset commands to resetDevice Lambda function for ESP32 receiver factory reset",
        processing="COMMAND",
        processing_description="Handle device factory reset commands",
    ),
    TopicRuleDefinition(
        key="deviceSettingsAck",
        rule_type="DeviceSettingsAck",
        topic=f"{IOT_TOPIC_TEMPLATES['settings']}/ack",
        lambda_function="updateDeviceSettings",
        description="Route settings acknowledgments from ESP32 receivers to updateDeviceSettings Lambda function",
        processing="ACKNOWLEDGMENT",
        processing_description="Process settings acknowledgments from ESP32 receivers",
    ),
]

# contract with the API repository Lambda implementations
LAMBDA_FUNCTION_REQUIREMENTS = {
    "handleButtonPress": {
        "purpose": "Process RF button press events in real-time",
        "inputData": "deviceId, buttonRfId, timestamp, batteryLevel",
        "outputAction": "Send push notifications to all authorized users",
        "databaseAccess": "DeviceUsers table (read-only)",
        "noStorage": "No persistent storage of button events for MVP"
    },
    "updateDeviceStatus": {
        "purpose": "Process and store device status updates",
        "inputData": "deviceId, statusType, timestamp, device metrics",
        "outputAction": "Update DeviceStatus table",
        "databaseAccess": "DeviceStatus table (write), Devices table (update)"
    },
    "resetDevice": {
        "purpose": "Handle device factory reset commands",
        "inputData": "deviceId, resetReason, timestamp",
        "outputAction": "Clean up device data and certificates",
        "databaseAccess": "All device-related tables (cleanup)"
    },
    "updateDeviceSettings": {
        "purpose": "Process settings updates from API and device acknowledgments",
        "inputData": "deviceId, settings, timestamp",
        "outputAction": "Update database and publish to device MQTT topic",
        "databaseAccess": "Devices table (update), publish to MQTT"
    }
}

API_RULE_INTEGRATION = {
    "apiEndpoints": {
        "PUT /devices/{deviceId}/settings": {
            "mqttTopic": "acorn-pups/settings/{deviceId}",
            "rule": "deviceSettingsAck",
            "flow": "API -> Lambda -> MQTT -> Device -> MQTT (ack) -> Lambda -> Database"
        },
        "POST /devices/{deviceId}/reset": {
            "mqttTopic": "acorn-pups/commands/{deviceId}/reset",
            "rule": "deviceReset",
            "flow": "API -> Lambda -> MQTT -> Device -> MQTT (ack) -> Lambda -> Database"
        }
    },
    "deviceToCloud": {
        "RF button press": {
            "mqttTopic": "acorn-pups/button-press/{deviceId}",
            "rule": "buttonPress",
            "flow": "Device -> MQTT -> Lambda -> SNS -> Mobile App"
        },
        "Device status": {
            "mqttTopic": "acorn-pups/status/{deviceId}",
            "rule": "deviceStatus",
            "flow": "Device -> MQTT -> Lambda -> DynamoDB"
        }
    }
}


_sql_env = Environment(undefined=StrictUndefined)
_rule_sql_template = _sql_env.from_string(RULE_SQL_TEMPLATE)

def rule_sql(topic:str)->str:
    # topic is used inside a single quoted SQL literal
    if "'" in topic:
        raise ValueError(f"Topic filter must not contain single quotes: {topic}")
    return _rule_sql_template.render(topic=topic)


class IotRulesStack(Stack):
    '''
    Topic Rules routing MQTT messages to Lambda functions of the API repository.
    Lambda ARNs (and by default the rule execution role ARN) are read from Parameter Store.
    '''

    def __init__(
        self,
        scope:Construct, construct_id:str,
        config:IotStackConfig,
        role_arn:str=None,
        rule_definitions:List[TopicRuleDefinition]=None,
        **kwargs
        ) -> None:

        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        environment = config.environment
        self.rule_definitions = TOPIC_RULES if rule_definitions is None else rule_definitions
        self.rules:Dict[str,aws_iot.CfnTopicRule] = {}
        self.parameter_helper = ParameterStoreHelper(self, environment=environment, stack_name="rules")

        if role_arn is None:
            _top_logger.info(f"Rule execution role ARN will be read from {rule_execution_role_arn_path(environment)}")
            role_arn = aws_ssm.StringParameter.value_for_string_parameter(self, rule_execution_role_arn_path(environment))
        self.role_arn = role_arn

        #############################################################
        # ***** Topic Rules *****
        # one rule per topic filter, one Lambda action per rule
        # errors go to the per-rule CloudWatch log group
        #############################################################
        for rule_def in self.rule_definitions:
            _top_logger.info(f"Define {rule_def.key} rule for {rule_def.topic}")
            lambda_arn_param = aws_ssm.StringParameter.from_string_parameter_name(
                self, f"{rule_def.lambda_function[0].upper()}{rule_def.lambda_function[1:]}LambdaArnParam",
                lambda_function_arn_path(environment, rule_def.lambda_function)
            )
            self.rules[rule_def.key] = aws_iot.CfnTopicRule(
                self, f"{rule_def.rule_type}Rule",
                rule_name=rule_def.rule_name(environment),
                topic_rule_payload=aws_iot.CfnTopicRule.TopicRulePayloadProperty(
                    sql=rule_sql(rule_def.topic),
                    description=rule_def.description,
                    actions=[
                        aws_iot.CfnTopicRule.ActionProperty(
                            lambda_=aws_iot.CfnTopicRule.LambdaActionProperty(
                                function_arn=lambda_arn_param.string_value
                            )
                        )
                    ],
                    error_action=aws_iot.CfnTopicRule.ActionProperty(
                        cloudwatch_logs=aws_iot.CfnTopicRule.CloudwatchLogsActionProperty(
                            log_group_name=rule_def.log_group_name(environment),
                            role_arn=self.role_arn
                        )
                    ),
                    rule_disabled=False
                ),
                tags=resource_tags(environment, "Rule", {"RuleType": rule_def.rule_type})
            )

        #############################################################
        # ***** Parameter Store *****
        #############################################################
        _top_logger.info(f"Publish rules parameters")
        self.parameter_helper.create_iot_rule_parameters(self.rules)
        self.parameter_helper.create_multiple_outputs_with_parameters([
            {
                "output_id": f"{rule_def.rule_type}RuleArnOutput",
                "value": self.rules[rule_def.key].attr_arn,
                "description": f"ARN of the {rule_def.rule_type} IoT Rule",
                "export_name": f"AcornPups{rule_def.rule_type}RuleArn-{environment}"
            }
            for rule_def in self.rule_definitions
        ])
        self.parameter_helper.create_parameter(
            "RuleConfigurationParam",
            json.dumps({
                rule_def.key: {
                    "topic": rule_def.topic,
                    "description": rule_def.processing_description,
                    "lambdaFunction": rule_def.lambda_function,
                    "processing": rule_def.processing
                }
                for rule_def in self.rule_definitions
            }),
            "IoT Rule configuration details",
            f"{parameter_root(environment)}/iot-core/rule-configuration"
        )
        self.parameter_helper.create_parameter(
            "LambdaFunctionRequirementsParam",
            json.dumps({
                rule_def.lambda_function: LAMBDA_FUNCTION_REQUIREMENTS[rule_def.lambda_function]
                for rule_def in self.rule_definitions
                if rule_def.lambda_function in LAMBDA_FUNCTION_REQUIREMENTS
            }),
            "Lambda function requirements for IoT rules",
            f"{parameter_root(environment)}/iot-core/lambda-function-requirements"
        )
        self.parameter_helper.create_parameter(
            "RuleTopicsParam",
            json.dumps({rule_def.key: rule_def.topic for rule_def in self.rule_definitions}),
            "MQTT topics monitored by IoT Rules",
            f"{parameter_root(environment)}/iot-core/rule-topics"
        )
        self.parameter_helper.create_parameter(
            "LogGroupPrefixParam", RULES_LOG_GROUP_PREFIX,
            "CloudWatch Log Group prefix for IoT Rules",
            f"{parameter_root(environment)}/iot-core/log-group-prefix"
        )
        self.parameter_helper.create_parameter(
            "ApiRuleIntegrationParam", json.dumps(API_RULE_INTEGRATION),
            "API and device integration mapping for IoT rules",
            f"{parameter_root(environment)}/iot-core/api-rule-integration"
        )

    @property
    def rule_names(self)->Dict[str,str]:
        return {rule_def.key: rule_def.rule_name(self.config.environment) for rule_def in self.rule_definitions}
