"""
Activity Module
Transport side of the inbox: the messaging gateway, the notification feed and
the synchronizer that moves their results into the conversation store.
"""

from activity.gateway import MessagingGateway, HttpMessagingGateway, GatewayError
from activity.sync import ConversationSynchronizer, SendOutcome
from activity.notifications import NotificationListener
