''' Unit tests for IoT Rules stack '''
import unittest
import json

import aws_cdk as core
import aws_cdk.assertions as assertions

from acorn_pups_iot.iot_definitions import IotStackConfig
from acorn_pups_iot.rules_stack import IotRulesStack, TOPIC_RULES, TopicRuleDefinition, rule_sql


TEST_ENV = core.Environment(account="123456789012", region="us-east-1")
TEST_ROLE_ARN = "arn:aws:iam::123456789012:role/AcornPupsIoTRuleExecution-test"


class TestRuleDefinitions(unittest.TestCase):

    def test_rule_sql(self):
        self.assertEqual(
            rule_sql("acorn-pups/button-press/+"),
            "SELECT *, topic(3) as deviceId, timestamp() as receivedAt FROM 'acorn-pups/button-press/+'"
        )

    def test_rule_sql_rejects_quote(self):
        with self.assertRaisesRegex(ValueError, "single quotes"):
            rule_sql("acorn-pups/button-press/' OR '1'='1")

    def test_routing_table(self):
        self.assertEqual(
            {r.key: (r.topic, r.lambda_function) for r in TOPIC_RULES},
            {
                "buttonPress": ("acorn-pups/button-press/+", "handleButtonPress"),
                "deviceStatus": ("acorn-pups/status/+", "updateDeviceStatus"),
                "deviceReset": ("acorn-pups/commands/+/reset", "resetDevice"),
                "deviceSettingsAck": ("acorn-pups/settings/+/ack", "updateDeviceSettings"),
            }
        )

    def test_rule_names(self):
        button_press = TOPIC_RULES[0]
        self.assertEqual(button_press.rule_name("dev"), "AcornPupsButtonPress_dev")
        self.assertEqual(button_press.log_group_name("dev"), "/aws/iot/rules/AcornPupsButtonPress_dev")


class TestIotRulesStack(unittest.TestCase):

    def setUp(self):
        self.app = core.App()
        self.stack = IotRulesStack(self.app, "TestRulesStack", IotStackConfig(environment="test"), role_arn=TEST_ROLE_ARN, env=TEST_ENV)
        self.template = assertions.Template.from_stack(self.stack)

    def test_rules_created(self):
        self.template.resource_count_is("AWS::IoT::TopicRule", 4)
        self.assertEqual(set(self.stack.rules.keys()), {"buttonPress", "deviceStatus", "deviceReset", "deviceSettingsAck"})
        self.assertEqual(self.stack.rule_names["deviceReset"], "AcornPupsDeviceReset_test")

    def test_button_press_rule(self):
        self.template.has_resource_properties("AWS::IoT::TopicRule", {
            "RuleName": "AcornPupsButtonPress_test",
            "TopicRulePayload": {
                "Sql": "SELECT *, topic(3) as deviceId, timestamp() as receivedAt FROM 'acorn-pups/button-press/+'",
                "RuleDisabled": False,
                "Actions": [
                    {"Lambda": {"FunctionArn": assertions.Match.any_value()}}
                ],
                "ErrorAction": {
                    "CloudwatchLogs": {
                        "LogGroupName": "/aws/iot/rules/AcornPupsButtonPress_test",
                        "RoleArn": TEST_ROLE_ARN
                    }
                }
            },
            "Tags": assertions.Match.array_with([
                {"Key": "Component", "Value": "Rule"},
                {"Key": "RuleType", "Value": "ButtonPress"},
            ])
        })

    def test_lambda_arns_from_parameter_store(self):
        for function_name in ["handleButtonPress", "updateDeviceStatus", "resetDevice", "updateDeviceSettings"]:
            found = self.template.find_parameters("*", {
                "Type": "AWS::SSM::Parameter::Value<String>",
                "Default": f"/acorn-pups/test/lambda-functions/{function_name}/arn"
            })
            self.assertEqual(len(found), 1, function_name)
        # role ARN was provided explicitly
        self.assertEqual(
            self.template.find_parameters("*", {"Default": "/acorn-pups/test/iot-core/rule-execution-role/arn"}),
            {}
        )

    def test_role_arn_from_parameter_store(self):
        stack = IotRulesStack(core.App(), "RoleFromSsmRulesStack", IotStackConfig(environment="test"), env=TEST_ENV)
        template = assertions.Template.from_stack(stack)
        found = template.find_parameters("*", {"Default": "/acorn-pups/test/iot-core/rule-execution-role/arn"})
        self.assertEqual(len(found), 1)
        param_logical_id = list(found.keys())[0]
        template.has_resource_properties("AWS::IoT::TopicRule", {
            "RuleName": "AcornPupsDeviceStatus_test",
            "TopicRulePayload": {
                "ErrorAction": {
                    "CloudwatchLogs": {"RoleArn": {"Ref": param_logical_id}}
                }
            }
        })

    def test_parameters(self):
        for key in ["buttonPress", "deviceStatus", "deviceReset", "deviceSettingsAck"]:
            self.template.has_resource_properties("AWS::SSM::Parameter", {
                "Name": f"/acorn-pups/test/iot-core/rules/{key}/arn"
            })
        self.template.has_resource_properties("AWS::SSM::Parameter", {
            "Name": "/acorn-pups/test/iot-core/rules/buttonPress/name",
            "Value": "AcornPupsButtonPress_test"
        })
        self.template.has_resource_properties("AWS::SSM::Parameter", {
            "Name": "/acorn-pups/test/iot-core/log-group-prefix",
            "Value": "/aws/iot/rules/AcornPups"
        })
        self.template.has_resource_properties("AWS::SSM::Parameter", {
            "Name": "/acorn-pups/test/iot-core/rule-topics",
            "Value": json.dumps({r.key: r.topic for r in TOPIC_RULES})
        })
        for path in ["rule-configuration", "lambda-function-requirements", "api-rule-integration"]:
            self.template.has_resource_properties("AWS::SSM::Parameter", {
                "Name": f"/acorn-pups/test/iot-core/{path}"
            })

    def test_outputs(self):
        for rule_type in ["ButtonPress", "DeviceStatus", "DeviceReset", "DeviceSettingsAck"]:
            self.template.has_output(f"{rule_type}RuleArnOutput", {
                "Export": {"Name": f"AcornPups{rule_type}RuleArn-test"}
            })

    def test_custom_rule_definitions(self):
        stack = IotRulesStack(
            core.App(), "CustomRulesStack", IotStackConfig(environment="test"),
            role_arn=TEST_ROLE_ARN,
            rule_definitions=[
                TopicRuleDefinition(
                    key="buttonPress", rule_type="ButtonPress", topic="acorn-pups/button-press/+",
                    lambda_function="handleButtonPress", description="test rule",
                    processing="REAL_TIME", processing_description="test"
                )
            ],
            env=TEST_ENV
        )
        assertions.Template.from_stack(stack).resource_count_is("AWS::IoT::TopicRule", 1)
        self.assertEqual(list(stack.rules.keys()), ["buttonPress"])

    def test_custom_rule_with_quoted_topic(self):
        with self.assertRaises(ValueError):
            IotRulesStack(
                core.App(), "QuotedTopicRulesStack", IotStackConfig(environment="test"),
                role_arn=TEST_ROLE_ARN,
                rule_definitions=[
                    TopicRuleDefinition(
                        key="buttonPress", rule_type="ButtonPress", topic="acorn-pups/button-press/'+",
                        lambda_function="handleButtonPress", description="test rule",
                        processing="REAL_TIME", processing_description="test"
                    )
                ],
                env=TEST_ENV
            )


if __name__ == '__main__':
    unittest.main()
