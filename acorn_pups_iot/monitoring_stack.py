'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from typing import Dict, List
import json

import logging
_top_logger = logging.getLogger(__name__)

from aws_cdk import (
    aws_cloudwatch,
    aws_iot,
    Duration,
    Stack,
    Tags,
)
from constructs import Construct

from acorn_pups_iot.iot_definitions import IotStackConfig, IOT_CLIENT_ID_PATTERN, PROJECT_NAME, SERVICE_NAME
from acorn_pups_iot.parameter_store import ParameterStoreHelper, parameter_root


IOT_NAMESPACE = "AWS/IoT"
CUSTOM_NAMESPACE = "AcornPups/IoT"
ERROR_RATE_EXPRESSION = "errors/total*100"
HIGH_ERROR_RATE_THRESHOLD = 5           # percent of failed rule executions
CONNECT_FAILURE_THRESHOLD = 10          # failed connections in ALARM_PERIOD
ALARM_PERIOD = Duration.minutes(5)


def iot_metric(metric_name:str, dimensions:Dict[str,str]=None, statistic:str="Sum", period:Duration=None)->aws_cloudwatch.Metric:
    return aws_cloudwatch.Metric(
        namespace=IOT_NAMESPACE,
        metric_name=metric_name,
        dimensions_map=dimensions,
        statistic=statistic,
        period=period
    )

def error_rate_expression(period:Duration=None)->aws_cloudwatch.MathExpression:
    ''' percentage of failed rule executions '''
    return aws_cloudwatch.MathExpression(
        expression=ERROR_RATE_EXPRESSION,
        using_metrics={
            "errors": iot_metric("RuleExecution.Failure", period=period),
            "total": iot_metric("RuleExecution", period=period),
        },
        period=period
    )


class MonitoringStack(Stack):
    ''' CloudWatch dashboard and alarms for receivers connectivity and IoT Rules '''

    def __init__(
        self,
        scope:Construct, construct_id:str,
        config:IotStackConfig,
        thing_type_name:str,
        iot_rules:Dict[str,aws_iot.CfnTopicRule],
        **kwargs
        ) -> None:

        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.thing_type_name = thing_type_name
        environment = config.environment
        self.alarms:Dict[str,aws_cloudwatch.Alarm] = {}
        self.parameter_helper = ParameterStoreHelper(self, environment=environment, stack_name="monitoring")
        # rule names are plain strings on L1 constructs
        self.rule_names:List[str] = [rule.rule_name for rule in iot_rules.values()]
        client_dimension = {"ClientId": IOT_CLIENT_ID_PATTERN}

        #############################################################
        # ***** Dashboard *****
        #############################################################
        _top_logger.info(f"Define IoT dashboard for {environment}")
        self.dashboard_name = f"AcornPupsIoT-{environment}"
        widgets_rows:List[List[aws_cloudwatch.IWidget]] = [
            [
                aws_cloudwatch.GraphWidget(
                    title="ESP32 Receiver Connectivity",
                    left=[
                        iot_metric("Connect.Success", client_dimension),
                        iot_metric("Connect.Failure", client_dimension),
                    ],
                    width=12,
                    height=6
                ),
                aws_cloudwatch.GraphWidget(
                    title="RF Button Press Message Processing",
                    left=[
                        iot_metric("PublishIn.Success", {"Topic": "acorn-pups/button-press"}),
                        iot_metric("PublishIn.Success", {"Topic": "acorn-pups/status"}),
                    ],
                    width=12,
                    height=6
                ),
            ],
            [
                aws_cloudwatch.GraphWidget(
                    title="IoT Rule Executions",
                    left=[iot_metric("RuleExecution", {"RuleName": rule_name}) for rule_name in self.rule_names],
                    width=12,
                    height=6
                ),
            ],
            [
                aws_cloudwatch.SingleValueWidget(
                    title="Active ESP32 Receivers",
                    metrics=[
                        aws_cloudwatch.Metric(
                            namespace=CUSTOM_NAMESPACE,
                            metric_name="ActiveReceivers",
                            statistic="Average"
                        )
                    ],
                    width=6,
                    height=6
                ),
                aws_cloudwatch.SingleValueWidget(
                    title="Error Rate",
                    metrics=[error_rate_expression()],
                    width=6,
                    height=6
                ),
            ],
        ]
        if config.enable_detailed_monitoring:
            # failures per rule
            widgets_rows[1].append(
                aws_cloudwatch.GraphWidget(
                    title="IoT Rule Failures",
                    left=[iot_metric("RuleExecution.Failure", {"RuleName": rule_name}) for rule_name in self.rule_names],
                    width=12,
                    height=6
                )
            )
        self.dashboard = aws_cloudwatch.Dashboard(
            self, "AcornPupsIoTDashboard",
            dashboard_name=self.dashboard_name,
            widgets=widgets_rows
        )
        for t_name, t_value in {"Project": PROJECT_NAME, "Environment": environment, "Service": SERVICE_NAME, "Component": "Dashboard"}.items():
            Tags.of(self.dashboard).add(t_name, t_value)

        #############################################################
        # ***** Alarms *****
        #############################################################
        _top_logger.info(f"Define IoT alarms")
        self.alarm_names:Dict[str,str] = {
            "highErrorRate": f"AcornPupsIoT-HighErrorRate-{environment}",
            "receiverConnectivity": f"AcornPupsIoT-ReceiverConnectivity-{environment}",
        }
        self.alarms["highErrorRate"] = aws_cloudwatch.Alarm(
            self, "HighErrorRateAlarm",
            alarm_name=self.alarm_names["highErrorRate"],
            alarm_description="High error rate in IoT Rule executions",
            metric=error_rate_expression(ALARM_PERIOD),
            threshold=HIGH_ERROR_RATE_THRESHOLD,
            evaluation_periods=2,
            datapoints_to_alarm=2,
            treat_missing_data=aws_cloudwatch.TreatMissingData.NOT_BREACHING
        )
        self.alarms["receiverConnectivity"] = aws_cloudwatch.Alarm(
            self, "ReceiverConnectivityAlarm",
            alarm_name=self.alarm_names["receiverConnectivity"],
            alarm_description="ESP32 receiver connectivity issues detected",
            metric=iot_metric("Connect.Failure", client_dimension, period=ALARM_PERIOD),
            threshold=CONNECT_FAILURE_THRESHOLD,
            evaluation_periods=2,
            datapoints_to_alarm=1,
            treat_missing_data=aws_cloudwatch.TreatMissingData.NOT_BREACHING
        )

        #############################################################
        # ***** Parameter Store *****
        #############################################################
        _top_logger.info(f"Publish monitoring parameters")
        self.parameter_helper.create_parameter(
            "DashboardNameParam", self.dashboard_name,
            "CloudWatch Dashboard name for Acorn Pups IoT monitoring",
            f"{parameter_root(environment)}/monitoring/dashboard-name"
        )
        self.parameter_helper.create_parameter(
            "AlarmNamesParam", json.dumps(self.alarm_names),
            "CloudWatch Alarm names for Acorn Pups IoT monitoring",
            f"{parameter_root(environment)}/monitoring/alarm-names"
        )
        self.parameter_helper.create_multiple_outputs_with_parameters([
            {
                "output_id": "DashboardNameOutput",
                "value": self.dashboard_name,
                "description": "Name of the CloudWatch Dashboard",
                "export_name": f"AcornPupsDashboardName-{environment}"
            },
            {
                "output_id": "HighErrorRateAlarmArnOutput",
                "value": self.alarms["highErrorRate"].alarm_arn,
                "description": "ARN of the High Error Rate Alarm",
                "export_name": f"AcornPupsHighErrorRateAlarmArn-{environment}"
            },
            {
                "output_id": "ReceiverConnectivityAlarmArnOutput",
                "value": self.alarms["receiverConnectivity"].alarm_arn,
                "description": "ARN of the Receiver Connectivity Alarm",
                "export_name": f"AcornPupsReceiverConnectivityAlarmArn-{environment}"
            },
        ])
        self.parameter_helper.create_parameter(
            "MonitoringMetricsParam",
            json.dumps({
                "receiverConnectivity": {
                    "namespace": IOT_NAMESPACE,
                    "successMetric": "Connect.Success",
                    "failureMetric": "Connect.Failure",
                    "dimension": f"ClientId: {IOT_CLIENT_ID_PATTERN}"
                },
                "buttonPressProcessing": {
                    "namespace": IOT_NAMESPACE,
                    "publishMetric": "PublishIn.Success",
                    "topicDimension": "acorn-pups/button-press"
                },
                "ruleExecution": {
                    "namespace": IOT_NAMESPACE,
                    "executionMetric": "RuleExecution",
                    "failureMetric": "RuleExecution.Failure",
                    "rules": self.rule_names
                }
            }),
            "CloudWatch metrics configuration for Acorn Pups IoT monitoring",
            f"{parameter_root(environment)}/monitoring/metrics-config"
        )
