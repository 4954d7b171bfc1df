'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from typing import Dict

import aws_cdk as cdk
from aws_cdk import Stack

import logging
_top_logger = logging.getLogger(__name__)

from acorn_pups_iot.certificate_stack import CertificateManagementStack
from acorn_pups_iot.thing_type_stack import IotThingTypeStack
from acorn_pups_iot.policy_stack import IotPolicyStack
from acorn_pups_iot.rules_stack import IotRulesStack
from acorn_pups_iot.monitoring_stack import MonitoringStack


def add_stack_dependency(stack:Stack, target:Stack):
    ''' stack is deployed after target '''
    # add_stack_dependency replaces add_dependency in recent aws-cdk-lib
    if hasattr(stack, "add_stack_dependency"):
        stack.add_stack_dependency(target)
    else:
        stack.add_dependency(target)


def create_stacks(app:cdk.App, pr_config)->Dict[str,Stack]:
    '''
    Define all Acorn Pups IoT stacks for pr_config.environment_name and wire deployment order.
    pr_config is common_project_config.ProjectConfig (or anything with the same attributes)
    '''
    stack_config = pr_config.stack_config
    stack_prefix = pr_config.stack_prefix
    env = cdk.Environment(account=pr_config.environment["account"], region=pr_config.environment["region"])
    _top_logger.info(f"Define Acorn Pups IoT stacks for {stack_config.environment} ({stack_prefix}-*)")

    stacks:Dict[str,Stack] = {}
    stacks["certificates"] = CertificateManagementStack(app, f"{stack_prefix}-certificates", stack_config, env=env)
    stacks["thing-types"] = IotThingTypeStack(app, f"{stack_prefix}-thing-types", stack_config, env=env)
    thing_type_name = stacks["thing-types"].acorn_pups_receiver_thing_type.thing_type_name

    rule_execution_role_arn = None
    if pr_config.manage_device_policy:
        _top_logger.info(f"Device policy and rule execution role are managed by this project")
        stacks["policies"] = IotPolicyStack(app, f"{stack_prefix}-policies", stack_config, thing_type_name=thing_type_name, env=env)
        rule_execution_role_arn = stacks["policies"].iot_rule_execution_role.role_arn

    stacks["rules"] = IotRulesStack(app, f"{stack_prefix}-rules", stack_config, role_arn=rule_execution_role_arn, env=env)
    stacks["monitoring"] = MonitoringStack(
        app, f"{stack_prefix}-monitoring", stack_config,
        thing_type_name=thing_type_name,
        iot_rules=stacks["rules"].rules,
        env=env
    )

    # deployment order
    add_stack_dependency(stacks["rules"], stacks["certificates"])
    add_stack_dependency(stacks["rules"], stacks["thing-types"])
    if "policies" in stacks:
        add_stack_dependency(stacks["rules"], stacks["policies"])
    add_stack_dependency(stacks["monitoring"], stacks["thing-types"])
    add_stack_dependency(stacks["monitoring"], stacks["rules"])

    #*****************************************
    # Tag everything in the app
    # *NOTE* tags identify orphan resources when stack destroy does not delete everything
    for t_name, t_value in pr_config.proj_tags.items():
        cdk.Tags.of(app).add(t_name, t_value)

    return stacks
