"""HTTP routes for slackgate."""
