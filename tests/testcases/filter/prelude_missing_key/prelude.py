header.add_format({"ID": "XD", "Number": "1", "Type": "Integer"})
