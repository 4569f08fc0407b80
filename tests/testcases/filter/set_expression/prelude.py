header.add_info(
    {
        "ID": "AFmax",
        "Number": 1,
        "Type": "Float",
        "Description": "Larger of AF and AFx for the first alternative allele",
    }
)
