"""
Webform CiviCRM Migrate

Migration-path tooling for moving Drupal 7 webforms that use webform_civicrm
onto the Drupal 9+ webform and webform_civicrm modules.

Supports:
- Rewriting CiviCRM contact elements with their legacy component settings
- Normalizing suffixed CiviCRM element keys
- Installing and configuring the webform_civicrm handler after import
- Running as a subscriber on a migration's lifecycle events
"""

__version__ = "0.1.0"
